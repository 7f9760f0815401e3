"""Library scanning: filename parsing, naming templates, scanning and organizing."""
from .file_organizer import FileOrganizer, get_unique_filename
from .file_parser import (
    clean_title,
    is_audio_file,
    is_book_file,
    is_media_file,
    is_video_file,
    parse_filename,
)
from .library_scanner import LibraryScanner, should_skip_directory
from .naming import (
    DEFAULT_NAMING_CONFIG,
    apply_template,
    clean_for_filename,
    generate_filename,
    generate_folder_path,
    preview_organized_path,
)

__all__ = [
    "DEFAULT_NAMING_CONFIG",
    "FileOrganizer",
    "LibraryScanner",
    "apply_template",
    "clean_for_filename",
    "clean_title",
    "generate_filename",
    "generate_folder_path",
    "get_unique_filename",
    "is_audio_file",
    "is_book_file",
    "is_media_file",
    "is_video_file",
    "parse_filename",
    "preview_organized_path",
    "should_skip_directory",
]
