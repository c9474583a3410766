"""Test doubles for the content API session and the UI collaborators."""

import base64
import json
from types import SimpleNamespace

from prompt_hub.collaborators import Severity


class FakeResponse:
    def __init__(self, status_code, body=None):
        self.status_code = status_code
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError("no JSON body")
        return self._body


class FakeContentAPI:
    """In-memory stand-in for a repository contents endpoint.

    Mimics ``requests.Session.request``: GET returns the base64 content and
    a sha (or 404), PUT replaces the content and rejects stale shas with 409.
    """

    def __init__(self):
        self.content = None
        self.sha = None
        self.revision = 0
        self.requests = []
        self.status_overrides = {}
        self.error = None
        self.on_request = None
        self.closed = False

    def request(self, method, url, headers=None, json=None, params=None, timeout=None):
        call = SimpleNamespace(method=method, url=url, headers=headers or {}, json=json,
                               params=params, timeout=timeout)
        self.requests.append(call)
        if self.on_request is not None:
            self.on_request(call)
        if self.error is not None:
            raise self.error
        if method in self.status_overrides:
            return FakeResponse(self.status_overrides[method], {'message': 'boom'})

        if '/contents/' not in url:
            return FakeResponse(200, {'full_name': url.rsplit('/repos/', 1)[-1]})

        if method == 'GET':
            if self.content is None:
                return FakeResponse(404, {'message': 'Not Found'})
            encoded = base64.encodebytes(self.content.encode('utf-8')).decode('ascii')
            return FakeResponse(200, {'content': encoded, 'sha': self.sha, 'encoding': 'base64'})

        if method == 'PUT':
            if self.content is not None and json.get('sha') != self.sha:
                return FakeResponse(409, {'message': 'sha does not match'})
            created = self.content is None
            self.content = base64.b64decode(json['content']).decode('utf-8')
            self.revision += 1
            self.sha = f"sha-{self.revision}"
            return FakeResponse(201 if created else 200, {'content': {'sha': self.sha}})

        return FakeResponse(405, {'message': 'method not allowed'})

    def close(self):
        self.closed = True

    def set_remote(self, data):
        """Store a dataset (model, dict or raw text) as the remote file."""
        if hasattr(data, 'to_json'):
            data = data.to_json()
        elif not isinstance(data, str):
            data = json.dumps(data)
        self.content = data
        self.revision += 1
        self.sha = f"sha-{self.revision}"

    def remote_json(self):
        return json.loads(self.content)

    @property
    def puts(self):
        return [call for call in self.requests if call.method == 'PUT']


class FakeUI:
    """Scripted collaborators: answers are consumed in order, None when exhausted."""

    def __init__(self, choices=None, answers=None, files=None):
        self.choices = list(choices or [])
        self.answers = list(answers or [])
        self.files = list(files or [])
        self.questions = []
        self.notifications = []

    def choose(self, message, options):
        self.questions.append((message, list(options)))
        return self.choices.pop(0) if self.choices else None

    def notify(self, message, severity=Severity.INFO):
        self.notifications.append((Severity(severity), message))

    def open_file(self, title):
        return self.files.pop(0) if self.files else None

    def save_file(self, title, default_name):
        self.questions.append((title, [default_name]))
        return self.files.pop(0) if self.files else None

    def ask(self, prompt, default=None, secret=False):
        return self.answers.pop(0) if self.answers else default

    def messages(self, severity=None):
        return [m for s, m in self.notifications if severity is None or s == severity]


