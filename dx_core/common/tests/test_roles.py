from io import StringIO

import pytest
from django.contrib.auth.models import Group
from django.core.management import call_command

from dx_core.common.permissions import ALL_ROLES, Actor, actor_from_user, user_roles


@pytest.mark.django_db
def test_ensure_roles_creates_only_missing_groups():
    Group.objects.create(name="LAB")

    out = StringIO()
    call_command("ensure_roles", stdout=out)

    assert set(Group.objects.values_list("name", flat=True)) == set(ALL_ROLES)
    assert "+ LAB" not in out.getvalue()
    assert f"{len(ALL_ROLES) - 1} created" in out.getvalue()

    out = StringIO()
    call_command("ensure_roles", stdout=out)
    assert "0 created" in out.getvalue()


@pytest.mark.django_db
def test_actor_from_user_uses_username_and_groups(make_user):
    user = make_user("lab.lee", "LAB", "nurse")

    actor = actor_from_user(user)

    assert actor.ref == "lab.lee"
    assert actor.roles == frozenset({"LAB", "NURSE"})
    assert not actor.is_admin


@pytest.mark.django_db
def test_superuser_is_admin_and_groupless_user_is_readonly(make_user):
    root = make_user("root", is_superuser=True)
    nobody = make_user("nobody")

    assert user_roles(root) == {"ADMIN"}
    assert user_roles(nobody) == {"READONLY"}


def test_admin_actor_passes_every_role_check():
    admin = Actor(" boss ", frozenset({"admin"}))

    assert admin.ref == "boss"
    assert admin.has_any({"PATHOLOGIST"})
    assert not Actor("x", frozenset({"NURSE"})).has_any({"PATHOLOGIST"})
