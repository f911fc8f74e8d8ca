from django.core.management.base import BaseCommand

from payments.services import PaymentReconciliationService


class Command(BaseCommand):
    help = "Reconcile pending payments by polling Paystack for their status"

    def add_arguments(self, parser):
        parser.add_argument("--max", type=int, default=100, help="Max payments to process")
        parser.add_argument(
            "--minutes",
            type=int,
            default=None,
            help="Only payments pending for at least N minutes (default PAYMENT_RECONCILE_AFTER_MINUTES)",
        )

    def handle(self, *args, **options):
        result = PaymentReconciliationService.reconcile_pending(
            older_than_minutes=options["minutes"],
            limit=options["max"],
        )

        if result["errors"]:
            self.stdout.write(self.style.WARNING(f"{result['errors']} payments could not be verified"))

        self.stdout.write(
            self.style.SUCCESS(
                f"Checked {result['checked']}, {result['succeeded']} succeeded, {result['failed']} failed."
            )
        )
