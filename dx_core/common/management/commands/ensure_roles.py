# dx_core/common/management/commands/ensure_roles.py

from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand

from dx_core.common.permissions import ALL_ROLES


class Command(BaseCommand):
    help = "Create the diagnostic role groups (ADMIN, DOCTOR, LAB, ...) that are missing."

    def handle(self, *args, **options):
        missing = sorted(set(ALL_ROLES) - set(Group.objects.filter(name__in=ALL_ROLES).values_list("name", flat=True)))
        for name in missing:
            Group.objects.get_or_create(name=name)
            self.stdout.write(f"  + {name}")

        self.stdout.write(self.style.SUCCESS(f"{len(ALL_ROLES)} role groups present, {len(missing)} created."))
