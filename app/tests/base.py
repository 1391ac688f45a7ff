import json

from django.test import TestCase

from users.models import RoleCode

from .factories import Factory


class BaseAppTestCase(TestCase):
    default_password = "pass1234"

    def make_user(self, *, role=RoleCode.ADMIN, **kwargs):
        return Factory.user(role=role, password=self.default_password, **kwargs)

    def login_as(self, user):
        self.client.force_login(user)
        return user

    def _send(self, method, url, data=None, **extra):
        body = json.dumps(data if data is not None else {})
        return getattr(self.client, method)(url, data=body, content_type="application/json", **extra)

    def post_json(self, url, data=None, **extra):
        return self._send("post", url, data, **extra)

    def put_json(self, url, data=None, **extra):
        return self._send("put", url, data, **extra)

    def patch_json(self, url, data=None, **extra):
        return self._send("patch", url, data, **extra)
