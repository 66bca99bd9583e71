"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

services/duplicate_service.py
Pure selection logic over duplicate groups: ordering files inside a group and
choosing which copy to keep.
"""
from typing import Iterable, List, Optional, Tuple

from duplidex.core.models import DuplicateGroup, FileRecord, SortOrder


class DuplicateService:
    @staticmethod
    def sort_files_inside_groups(groups: List[DuplicateGroup],
                                 sort_order: Optional[SortOrder] = None) -> None:
        """
        Sorts files inside each group in place so the copy to keep comes first.
        - SHORTEST_PATH: fewest path separators first, then shortest name (DEFAULT)
        - SHORTEST_FILENAME: shortest name first, then fewest path separators
        Ties are broken by path so the order is deterministic.
        """
        if not groups:
            return

        if sort_order is None:
            sort_order = SortOrder.SHORTEST_PATH

        if sort_order == SortOrder.SHORTEST_FILENAME:
            key_func = lambda f: (len(f.name), f.path_depth, f.path)
        else:
            key_func = lambda f: (f.path_depth, len(f.name), f.path)

        for group in groups:
            group.files.sort(key=key_func)

    @staticmethod
    def remove_files_from_groups(groups: List[DuplicateGroup],
                                 file_ids: Iterable[int]) -> List[DuplicateGroup]:
        """
        Removes files with the given ids from all groups.
        Groups left with fewer than 2 files are discarded.
        """
        ids = set(file_ids)
        updated_groups = []
        for group in groups:
            remaining = [f for f in group.files if f.id not in ids]
            if len(remaining) >= 2:
                updated_groups.append(DuplicateGroup(hash=group.hash, size=group.size, files=remaining))
        return updated_groups

    @staticmethod
    def keep_only_one_file_per_group(
            groups: List[DuplicateGroup],
            sort_order: Optional[SortOrder] = None
    ) -> Tuple[List[int], List[FileRecord]]:
        """
        Keeps one file per group and marks the rest for quarantine.
        Returns:
            - ids of the files to quarantine
            - the file kept from each group
        """
        DuplicateService.sort_files_inside_groups(groups, sort_order)
        to_quarantine: List[int] = []
        kept: List[FileRecord] = []
        for group in groups:
            if len(group.files) < 2:
                continue
            kept.append(group.files[0])
            to_quarantine.extend(f.id for f in group.files[1:])
        return to_quarantine, kept
