# tenancy/management/commands/provision_organization.py

from django.core.management.base import BaseCommand, CommandError

from tenancy.provisioning import add_member, create_user_entity, provision_organization
from universal.models import Organization


class Command(BaseCommand):
    help = "Create an organization, its shadow entity and optionally a first member"

    def add_arguments(self, parser):
        parser.add_argument("code", help="Unique organization code")
        parser.add_argument("name", help="Organization display name")
        parser.add_argument("--currency", default=None, help="Default transaction currency (ISO 4217)")
        parser.add_argument("--timezone", default=None, help="IANA timezone of the business day")
        parser.add_argument("--owner-name", default=None, help="Create a USER entity with this name as first member")
        parser.add_argument("--owner-email", default=None)

    def handle(self, *args, **options):
        if Organization.objects.filter(organization_code=options["code"]).exists():
            raise CommandError(f"Organization {options['code']} already exists.")

        organization = provision_organization(
            organization_name=options["name"],
            organization_code=options["code"],
            default_currency=options["currency"],
            timezone=options["timezone"],
        )
        self.stdout.write(f"Organization {organization.organization_code}: {organization.id}")

        if options["owner_name"]:
            user = create_user_entity(options["owner_name"], email=options["owner_email"])
            add_member(organization, user, role="owner")
            self.stdout.write(f"Owner {user.entity_name}: {user.id}")

        self.stdout.write(self.style.SUCCESS("Done!"))
