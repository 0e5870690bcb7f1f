import argparse
import getpass

from app.database import Base, SessionLocal, engine
import app.models  # noqa: F401
from app.data.user_manager import UserManager
from app.utils.security import get_password_hash
from app.models.user import UserRole


def create_controller(login: str, email: str, first_name: str, last_name: str, password: str):
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    manager = UserManager()
    manager.set_db(db)

    try:
        if manager.get_user_by_login(login):
            print(f"User {login} already exists.")
            return

        print(f"Creating controller account: {login}")
        manager.add_user(
            first_name=first_name,
            last_name=last_name,
            email=email,
            hashed_password=get_password_hash(password),
            role=UserRole.CONTROLLER.value,
            login=login,
            is_controller=True,
        )
        print("Controller created successfully.")
    except ValueError as e:
        print(f"Failed to create controller: {e}")
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a controller account.")
    parser.add_argument("--login", default="controller")
    parser.add_argument("--email", default="controller@council.local")
    parser.add_argument("--first-name", default="Council")
    parser.add_argument("--last-name", default="Controller")
    args = parser.parse_args()
    create_controller(
        args.login,
        args.email,
        args.first_name,
        args.last_name,
        getpass.getpass("Password: "),
    )
