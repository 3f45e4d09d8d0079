# Occupancy Ledger — Database Models
# Import all models here for SQLAlchemy discovery

from app.models.business import Business                # noqa
from app.models.venue import Venue                      # noqa
from app.models.area import Area                        # noqa
from app.models.member import BusinessMember            # noqa
from app.models.occupancy_event import OccupancyEvent   # noqa
from app.models.patron_ban import BannedPerson, PatronBan, BanEnforcementEvent  # noqa
from app.models.id_scan import IdScan                   # noqa
from app.models.alert import Alert                      # noqa
