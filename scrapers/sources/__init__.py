"""Auto-import all source scrapers to trigger @register decorators.

Import order is run order.
"""

# isort: skip_file
from scrapers.sources import visit_nyack  # noqa: F401
from scrapers.sources import the_angel_nyack  # noqa: F401
from scrapers.sources import eventbrite  # noqa: F401
from scrapers.sources import levity_live  # noqa: F401
from scrapers.sources import elmwood_playhouse  # noqa: F401
from scrapers.sources import rivertown_film  # noqa: F401
from scrapers.sources import nyack_village  # noqa: F401
