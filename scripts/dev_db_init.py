# scripts/dev_db_init.py
# Запуск из корня репозитория: python -m scripts.dev_db_init
from app import create_app
from extensions import db
from seed import ensure_admin, ensure_demo_users, seed_plan

if __name__ == "__main__":
    app = create_app("dev")
    with app.app_context():
        db.create_all()
        seed_plan()
        ensure_admin()
        ensure_demo_users()
        print("DB initialized and seeded ✅")
