from django.core.management.base import BaseCommand, CommandError

from finance import ledger
from finance.exceptions import LedgerError
from finance.models import Contract
from finance.reconciliation import JOBS, run_job


class Command(BaseCommand):
    help = "Run one reconciliation job now, or recalculate contract statuses. Safe to repeat."

    def add_arguments(self, parser):
        parser.add_argument(
            "job",
            choices=sorted(JOBS) + ["recalc"],
            help="Job to run. 'recalc' re-derives statuses of one contract (--contract-id) or all contracts.",
        )
        parser.add_argument(
            "--contract-id",
            type=int,
            default=None,
            help="Contract to recalculate (recalc only).",
        )

    def handle(self, *args, **options):
        job = options["job"]

        if job == "recalc":
            self._recalc(options.get("contract_id"))
            return

        try:
            result = run_job(job)
        except LedgerError as e:
            raise CommandError(str(e.detail))
        self.stdout.write(self.style.SUCCESS(f"{job}: {result}"))

    def _recalc(self, contract_id):
        if contract_id is not None:
            contract_ids = [contract_id]
        else:
            contract_ids = list(Contract.objects.order_by("pk").values_list("pk", flat=True))

        for cid in contract_ids:
            try:
                contract = ledger.recalculate_contract(cid)
            except LedgerError as e:
                raise CommandError(str(e.detail))
            self.stdout.write(f"Contract {cid}: {contract.status}")

        self.stdout.write(self.style.SUCCESS(f"Recalculated {len(contract_ids)} contract(s)."))
