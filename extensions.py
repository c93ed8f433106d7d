from flask_bcrypt import Bcrypt
from flask_login import LoginManager

# Shared by admin sign-in (auth.py) and judge passwords (judge_auth.py, judges.py)
bcrypt = Bcrypt()

login_manager = LoginManager()
login_manager.login_view = "auth.login"
