"""Record normalization and batch import."""

from clinic_records.importer.batch import (
    BatchImporter,
    CodePolicy,
    ImportOptions,
    create_record,
    find_duplicate_codes,
    import_batch,
)
from clinic_records.importer.normalizer import (
    NORMALIZATION_RULES,
    NormalizationContext,
    merge_update,
    normalize,
)

__all__ = [
    "BatchImporter",
    "CodePolicy",
    "ImportOptions",
    "NORMALIZATION_RULES",
    "NormalizationContext",
    "create_record",
    "find_duplicate_codes",
    "import_batch",
    "merge_update",
    "normalize",
]
