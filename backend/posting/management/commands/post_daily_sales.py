# posting/management/commands/post_daily_sales.py

import json

from django.core.management.base import BaseCommand, CommandError

from posting.commands import post_daily_sales
from universal.conf import hera_setting


class Command(BaseCommand):
    help = "Post one branch's sales for one business day into a GL journal"

    def add_arguments(self, parser):
        parser.add_argument("organization_id")
        parser.add_argument("branch_id")
        parser.add_argument("business_date", help="YYYY-MM-DD in the organization's timezone")
        parser.add_argument("--actor", default=None, help="USER entity id (defaults to HERA SYSTEM_ACTOR_ID)")

    def handle(self, *args, **options):
        actor = options["actor"] or hera_setting("SYSTEM_ACTOR_ID")
        if not actor:
            raise CommandError("Pass --actor or configure HERA SYSTEM_ACTOR_ID.")

        result = post_daily_sales(actor, options["organization_id"], options["branch_id"], options["business_date"])
        if not result.success:
            self.stderr.write(json.dumps(result.to_dict()["error"], indent=2, default=str))
            raise CommandError(f"{result.code}: {result.error}")

        self.stdout.write(self.style.SUCCESS(
            f"Posted {result.data['journal_code']} ({result.data['summary']['transaction_count']} sales)."
        ))
