import signal
import threading

from django.core.management.base import BaseCommand, CommandError

from finance.scheduler import build_default_scheduler


class Command(BaseCommand):
    help = "Run the reconciliation scheduler (overdue / paid sweeps, low stock, reminders) until stopped."

    def add_arguments(self, parser):
        parser.add_argument(
            "--run-now",
            action="append",
            default=[],
            metavar="JOB",
            help="Run this job once at startup before entering the schedule (repeatable).",
        )

    def handle(self, *args, **options):
        scheduler = build_default_scheduler()
        unknown = [job for job in options["run_now"] if job not in scheduler.jobs]
        if unknown:
            raise CommandError(
                f"Unknown job(s) for --run-now: {', '.join(unknown)}. "
                f"Available: {', '.join(sorted(scheduler.jobs))}"
            )

        stop_requested = threading.Event()

        def _request_stop(signum, frame):
            self.stdout.write(f"Received signal {signum}, stopping scheduler...")
            stop_requested.set()

        signal.signal(signal.SIGINT, _request_stop)
        signal.signal(signal.SIGTERM, _request_stop)

        scheduler.start()
        for job in options["run_now"]:
            self.stdout.write(f"Running {job} now...")
            result = scheduler.run_now(job)
            self.stdout.write(f"{job}: {result}")

        for job in scheduler.jobs.values():
            self.stdout.write(f"{job.name}: next run {job.next_run.isoformat()}")
        self.stdout.write(self.style.SUCCESS("Scheduler running. Press Ctrl+C to stop."))

        try:
            while not stop_requested.wait(1):
                pass
        finally:
            scheduler.stop(wait=True)

        self.stdout.write(self.style.SUCCESS("Scheduler stopped."))
