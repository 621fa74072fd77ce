from .party import Party
from .signup import Signup
from .match import Match
