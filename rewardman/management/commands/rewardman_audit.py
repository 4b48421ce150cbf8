"""Management command to verify balances against their transaction logs."""

from django.core.management.base import BaseCommand, CommandError

from rewardman.models import UserMerchantBalance
from rewardman.services.ledger import LedgerService


class Command(BaseCommand):
    help = "Replay point transactions and report balances that do not match"

    def add_arguments(self, parser):
        parser.add_argument(
            "--merchant",
            type=int,
            default=None,
            help="Only audit balances at this merchant",
        )
        parser.add_argument(
            "--user",
            type=int,
            default=None,
            help="Only audit balances of this user",
        )

    def handle(self, *args, **options):
        balances = UserMerchantBalance.objects.order_by("merchant_id", "user_id")
        if options["merchant"] is not None:
            balances = balances.filter(merchant_id=options["merchant"])
        if options["user"] is not None:
            balances = balances.filter(user_id=options["user"])

        checked = 0
        broken = 0
        for user_id, merchant_id in balances.values_list("user_id", "merchant_id").iterator():
            audit = LedgerService.verify_balance(user_id, merchant_id)
            checked += 1
            if audit.consistent:
                continue
            broken += 1
            self.stdout.write(
                self.style.ERROR(
                    f"user={user_id} merchant={merchant_id}: stored {audit.stored_balance}, "
                    f"replayed {audit.replayed_balance}, "
                    f"chain breaks at {audit.chain_breaks or '-'}"
                )
            )

        if broken:
            raise CommandError(f"{broken} of {checked} balances are inconsistent.")

        self.stdout.write(self.style.SUCCESS(f"Audited {checked} balances, all consistent."))
