from .user import User
from .scenario import Scenario
from .recording import Recording
from .text_response import TextResponse
from .rating import ResponseRating
# base and mixins are imported by the above as needed
