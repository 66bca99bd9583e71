from duplidex.core.models import Category, SortOrder

CATEGORY_ALIASES = {
    "photos": Category.PHOTOS,
    "images": Category.PHOTOS,
    "music": Category.MUSIC,
    "audio": Category.MUSIC,
    "videos": Category.VIDEOS,
    "documents": Category.DOCUMENTS,
    "docs": Category.DOCUMENTS,
}

CATEGORY_CHOICES = list(CATEGORY_ALIASES.keys())

CATEGORY_HELP_TEXT = (
    "Content categories to index (space separated, default: every file):\n"
    "  photos     : .jpg .jpeg .png .gif .bmp .tiff .webp .heic .raw\n"
    "  music      : .mp3 .wav .flac .aac .ogg .m4a\n"
    "  videos     : .mp4 .mkv .avi .mov .wmv .flv .webm\n"
    "  documents  : .pdf .doc(x) .txt .rtf .odt .xls(x) .ppt(x)\n"
    "Example    : %(prog)s ~/Pictures ~/Backup -c photos videos\n"
)

SORT_ALIASES = {
    "shortest-path": SortOrder.SHORTEST_PATH,
    "shortest-filename": SortOrder.SHORTEST_FILENAME,
}

SORT_CHOICES = list(SORT_ALIASES.keys())

SORT_HELP_TEXT = (
    "Which copy --keep-one keeps in each group:\n"
    "  shortest-path      : file closest to the filesystem root (default)\n"
    "  shortest-filename  : file with the shortest name\n"
)

EPILOG_TEXT = """
Examples:
  Index two folders and find duplicates (only new/changed files are read)
  %(prog)s scan ~/Pictures /mnt/backup/Pictures

  List duplicate groups bigger than 1MB whose path contains "holiday"
  %(prog)s duplicates --min-size 1MB --search holiday

  Show folders with identical contents
  %(prog)s folders

  Move every copy but one into the quarantine folder (with confirmation prompt)
  %(prog)s quarantine --keep-one

  Undo a quarantine move, or send the quarantined copy to the trash for good
  %(prog)s history
  %(prog)s restore 12 13
  %(prog)s discard 14 --force

  Never index a folder again (already indexed files below it are dropped)
  %(prog)s exclude add ~/Pictures/cache
"""
