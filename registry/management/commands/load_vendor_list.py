import json
from django.core.management.base import BaseCommand, CommandError

from registry.models import VendorList
from registry.providers import fetch_global_vendor_list, RegistryUnavailable


class Command(BaseCommand):
	help = "Load the Global Vendor List from a local JSON file or download it"

	def add_arguments(self, parser):
		parser.add_argument("--file", help="Path to a vendor-list.json file")
		parser.add_argument("--url", help="Download from this URL instead of the configured ones")

	def handle(self, *args, **options):
		if options.get("file"):
			try:
				with open(options["file"], encoding="utf-8") as fh:
					data = json.load(fh)
			except (OSError, json.JSONDecodeError) as e:
				raise CommandError(f"Could not read {options['file']}: {e}")
			source = options["file"]
		else:
			urls = [options["url"]] if options.get("url") else None
			try:
				data, source = fetch_global_vendor_list(urls=urls)
			except RegistryUnavailable as e:
				raise CommandError(str(e))

		if "vendorListVersion" not in data:
			raise CommandError("Document has no vendorListVersion; is it a GVL?")

		vendor_list = VendorList.update_from_gvl(data, source=source)
		vendor_count = len(vendor_list.data.get("vendors") or {})
		self.stdout.write(self.style.SUCCESS(
			f"Loaded GVL v{vendor_list.version} ({vendor_count} vendors) from {source}"
		))
