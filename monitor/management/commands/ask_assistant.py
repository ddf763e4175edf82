from django.core.management.base import BaseCommand, CommandError

from monitor.exceptions import ChatGatewayError
from monitor.services.chat import open_completion_stream, relay
from monitor.services.sse import iter_deltas


class Command(BaseCommand):
    help = "Ask the HealthPulse assistant a question and stream the reply."

    def add_arguments(self, parser):
        parser.add_argument("question", nargs="+")

    def handle(self, *args, **opts):
        question = " ".join(opts["question"]).strip()
        if not question:
            raise CommandError("question must not be empty")
        try:
            upstream = open_completion_stream([{"role": "user", "content": question}])
        except ChatGatewayError as e:
            raise CommandError(str(e)) from e

        for delta in iter_deltas(relay(upstream)):
            self.stdout.write(delta, ending="")
            self.stdout.flush()
        self.stdout.write("")
