"""Domain modules package."""

from tutordesk.modules.audit import models as audit_models  # noqa: F401
from tutordesk.modules.batches import models as batches_models  # noqa: F401
from tutordesk.modules.courses import models as courses_models  # noqa: F401
from tutordesk.modules.identity import models as identity_models  # noqa: F401
from tutordesk.modules.sessions import models as sessions_models  # noqa: F401
