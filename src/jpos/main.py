from __future__ import annotations

import logging

from jpos.api import create_app
from jpos.application.container import build_container
from jpos.config import get_app_paths, load_runtime_config
from jpos.logging_config import setup_logging

log = logging.getLogger(__name__)


def main() -> None:
    paths = get_app_paths()
    config = load_runtime_config()
    setup_logging(paths.logs_dir, level=config.log_level)

    container = build_container(paths.db_path, config, outbox_path=paths.outbox_path)
    container.auth.ensure_bootstrap_admin(paths.base_dir, password=config.bootstrap_admin_password or None)

    flushed = container.sales.flush_outbox()
    if flushed:
        log.info("outbox_flushed_on_start count=%s", flushed)

    app = create_app(container)
    log.info("server_starting host=%s port=%s fallback=%s", config.host, config.port, config.sale_fallback)
    app.run(host=config.host, port=config.port)


if __name__ == "__main__":
    main()
