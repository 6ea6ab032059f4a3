# Import every model so Base.metadata knows about all tables (used by alembic and create_all)
from tripledger.db.session import Base  # noqa: F401
from tripledger.models.user import User  # noqa: F401
from tripledger.models.trip import Trip  # noqa: F401
from tripledger.models.expense import Expense  # noqa: F401
from tripledger.models.mileage_log import MileageLog  # noqa: F401
