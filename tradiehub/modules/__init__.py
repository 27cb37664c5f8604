"""
TradieHub Modules

- auth: Caller identity and role guards
- notifications: Marketplace event publishing
- credits: Credit ledger and auto-topup
- marketplace: Job postings, applications, tradie selection, stats
- jobs: Internal work orders
- quotes: Quotes, line items and GST totals
- analytics: Aggregations over marketplace and quote records
"""
# Importing the models registers every table on Base.metadata
from tradiehub.modules.credits import models as credits_models  # noqa: F401
from tradiehub.modules.jobs import models as jobs_models  # noqa: F401
from tradiehub.modules.marketplace import models as marketplace_models  # noqa: F401
from tradiehub.modules.quotes import models as quotes_models  # noqa: F401
