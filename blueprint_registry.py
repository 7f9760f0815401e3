from __future__ import annotations

from routes.library import create_blueprint as create_library_blueprint
from routes.organizer import create_blueprint as create_organizer_blueprint
from routes.scanner import create_blueprint as create_scanner_blueprint
from routes.settings import create_blueprint as create_settings_blueprint
from routes.system import create_blueprint as create_system_blueprint
from routes.verify import create_blueprint as create_verify_blueprint


def register_blueprints(app, deps):
    app.register_blueprint(create_system_blueprint({
        "config": deps["config"],
        "db_path": deps["db_path"],
        "get_migration_status": deps["get_migration_status"],
        "library": deps["library"],
        "scanner": deps["scanner"],
        "organizer": deps["organizer"],
        "verify_queue": deps["verify_queue"],
        "telemetry": deps["telemetry"],
        "ffprobe_available": deps["ffprobe_available"],
        "runtime_config_validation": deps["runtime_config_validation"],
    }))
    app.register_blueprint(create_settings_blueprint({
        "config": deps["config"],
        "logger": deps["logger"],
        "on_settings_saved": deps["on_settings_saved"],
        "runtime_config_validation": deps["runtime_config_validation"],
    }))
    app.register_blueprint(create_scanner_blueprint({
        "config": deps["config"],
        "logger": deps["logger"],
        "scanner": deps["scanner"],
        "scan_state": deps["scan_state"],
        "run_library_scan": deps["run_library_scan"],
        "start_thread": deps["start_thread"],
        "human_size": deps["human_size"],
    }))
    app.register_blueprint(create_organizer_blueprint({
        "config": deps["config"],
        "logger": deps["logger"],
        "scanner": deps["scanner"],
        "organizer": deps["organizer"],
        "organize_state": deps["organize_state"],
        "run_organize": deps["run_organize"],
        "start_thread": deps["start_thread"],
    }))
    app.register_blueprint(create_verify_blueprint({
        "config": deps["config"],
        "logger": deps["logger"],
        "verify_queue": deps["verify_queue"],
        "verify_store": deps["verify_store"],
        "phase_jobs": deps["phase_jobs"],
        "run_verify": deps["run_verify"],
        "verify_content": deps["verify_content"],
        "quick_verify": deps["quick_verify"],
        "security_scan": deps["security_scan"],
    }))
    app.register_blueprint(create_library_blueprint({
        "logger": deps["logger"],
        "library": deps["library"],
        "verify_queue": deps["verify_queue"],
        "human_size": deps["human_size"],
    }))
