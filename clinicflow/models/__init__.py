from .appointment import Appointment, Block, TimeOff
from .professional import Professional, ProfileEntry, WorkSchedule
from .status import CanonicalStatus
