from io import StringIO

from django.core.management import call_command
from django.urls import reverse

from tests.base import BaseAppTestCase
from users.models import RoleCode, User, UserRole
from users.permissions import user_has_any_role


class UsersAuthAndPermissionTests(BaseAppTestCase):
    def setUp(self):
        self.manager = self.make_user(role=RoleCode.MANAGER, username="gerente")
        self.advisor = self.make_user(role=RoleCode.SALES_ADVISOR, username="asesor")

    def test_login_authenticates_and_returns_user(self):
        response = self.post_json(reverse("users_api:login"), {"username": "gerente", "password": "pass1234"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["user"]["role"], RoleCode.MANAGER)

        me = self.client.get(reverse("users_api:me"))
        self.assertEqual(me.json()["user"]["username"], "gerente")

    def test_login_accepts_email_identifier(self):
        response = self.post_json(
            reverse("users_api:login"), {"email": self.manager.email, "password": "pass1234"}
        )
        self.assertEqual(response.status_code, 200)

    def test_login_rejects_bad_password(self):
        response = self.post_json(reverse("users_api:login"), {"username": "gerente", "password": "x"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["code"], "invalid_credentials")

    def test_me_requires_session(self):
        response = self.client.get(reverse("users_api:me"))
        self.assertEqual(response.status_code, 401)

    def test_user_list_filters_by_role(self):
        self.login_as(self.manager)
        payload = self.client.get(reverse("users_api:user_list"), {"role": "sales_advisor"}).json()
        self.assertEqual([item["username"] for item in payload["items"]], ["asesor"])

    def test_superadmin_and_superuser_pass_every_role_check(self):
        superadmin = self.make_user(role=RoleCode.SUPERADMIN)
        superuser = User.objects.create_superuser("root", "root@example.com", "pass1234")
        self.assertTrue(user_has_any_role(superadmin, (RoleCode.MANAGER,)))
        self.assertTrue(user_has_any_role(superuser, (RoleCode.MANAGER,)))
        self.assertFalse(user_has_any_role(self.advisor, (RoleCode.MANAGER,)))

    def test_additional_roles_are_honoured(self):
        extra = UserRole.objects.create(code=RoleCode.SUPERVISOR)
        self.advisor.roles.add(extra)
        self.assertTrue(self.advisor.has_role(RoleCode.SUPERVISOR))
        self.assertTrue(user_has_any_role(self.advisor, (RoleCode.SUPERVISOR,)))

    def test_seed_roles_is_idempotent(self):
        out = StringIO()
        call_command("seed_roles", stdout=out)
        call_command("seed_roles", stdout=out)
        self.assertEqual(UserRole.objects.count(), len(RoleCode.values))
        self.assertIn("0 nuevos", out.getvalue())
