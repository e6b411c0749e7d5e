from django.core.management.base import BaseCommand, CommandError

from messaging.exceptions import PartialBroadcastFailure
from messaging.services.notifications import check_inventory_level, stock_status


class Command(BaseCommand):
    help = "Alert all staff when an inventory item is low or out of stock."

    def add_arguments(self, parser):
        parser.add_argument("item_name")
        parser.add_argument("stocks_left", type=int)

    def handle(self, *args, **opts):
        item, stocks_left = opts["item_name"], opts["stocks_left"]
        result = check_inventory_level(item, stocks_left)
        if result is None:
            self.stdout.write(f"{item}: {stock_status(stocks_left)}, no alert sent")
            return
        self.stdout.write(self.style.SUCCESS(f"{item}: {len(result.created)} staff notified"))
        for recipient_id, reason in result.failures:
            self.stderr.write(self.style.WARNING(f"recipient {recipient_id} failed: {reason}"))
        try:
            result.raise_for_failures()
        except PartialBroadcastFailure as exc:
            raise CommandError(str(exc)) from exc
