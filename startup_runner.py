from __future__ import annotations


def initialize_runtime_services(
    *,
    config,
    logger,
    library,
    verify_queue,
    validate_config,
    ffprobe_available,
):
    validate_config()
    library.cleanup_activity(days=90)
    verify_queue.start_housekeeping()

    folders = config.get_media_folders()
    folder_summary = ", ".join(f"{f['type']}={f['path']}" for f in folders) or "none"
    logger.info("Curatarr starting: %s media folders configured: %s", len(folders), folder_summary)

    destinations = [k for k, v in config.get_destinations().items() if v]
    if destinations:
        logger.info("Organizer destinations: %s (%s, conflicts=%s)",
                    ", ".join(destinations), config.FILE_OPERATION, config.CONFLICT_RESOLUTION)
    else:
        logger.warning("No organizer destinations configured; organizing will skip every file")

    if not ffprobe_available(config.FFPROBE_BIN):
        logger.warning("%s not found; verification will use filename heuristics only", config.FFPROBE_BIN)
