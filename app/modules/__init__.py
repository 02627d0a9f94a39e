"""Domain modules package."""

from app.modules.audit import models as audit_models  # noqa: F401
from app.modules.cancellation import models as cancellation_models  # noqa: F401
from app.modules.enrollment import models as enrollment_models  # noqa: F401
from app.modules.notifications import models as notifications_models  # noqa: F401
from app.modules.programs import models as programs_models  # noqa: F401
from app.modules.scheduling import models as scheduling_models  # noqa: F401
