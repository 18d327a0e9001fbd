import sys

from database import SessionLocal
import models

def run(user_id: str):
    db = SessionLocal()
    try:
        user = db.query(models.User).filter(models.User.user_id == user_id).first()
        if not user:
            print("User not found:", user_id)
            return
        print("Before:", user.user_id, user.role, user.is_admin, user.is_active)
        user.role = "admin"
        user.is_admin = True
        user.is_active = True
        db.commit()
        db.refresh(user)
        print("After:", user.user_id, user.role, user.is_admin, user.is_active)
        print("User promoted to admin:", user_id)
    finally:
        db.close()

if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python elevate_user.py <userId>")
        sys.exit(1)
    run(sys.argv[1])
