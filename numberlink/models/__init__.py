# NumberLink — Database Models
# Import all models here for SQLAlchemy discovery

from numberlink.models.individual import Individual                 # noqa
from numberlink.models.company import CompanyAccount, Company        # noqa
from numberlink.models.vehicle import Vehicle                        # noqa
from numberlink.models.payment import Payment, PaymentStatus         # noqa
from numberlink.models.password_reset import PasswordReset           # noqa
