import sys
import os

sys.path.append(os.getcwd())

from portal.db.session import engine
from portal.db.base import Base  # registers every portal model on the metadata


def create_tables():
    tables = ", ".join(sorted(Base.metadata.tables))
    print(f"Creating portal tables on {engine.url.render_as_string(hide_password=True)}: {tables}")
    Base.metadata.create_all(bind=engine)
    print("Portal schema is up to date.")


if __name__ == "__main__":
    create_tables()
