from authflow.core.config import Settings
from authflow.core.logging import configure_logging
from authflow.infrastructure.clock import SystemClock
from authflow.infrastructure.persistence.sqlite import SQLiteCredentialStore


def main() -> None:
    configure_logging()
    settings = Settings()
    clock = SystemClock()
    store = SQLiteCredentialStore(settings.database_path, clock=clock)
    try:
        purged = store.purge_expired_codes(clock.now())
    finally:
        store.close()
    print(f"Purged {purged} expired pending code(s) from {settings.database_path}")


if __name__ == "__main__":
    main()
