"""The course's statically known build units.

Each lecture is a `(directory, topic)` pair: the deck lives in
`lectures/<directory>/<topic>.md`. Each homework is a `(path, slug)` pair,
with `path` relative to the project root. Both tables can be replaced in the
project configuration file.
"""

LECTURES: tuple[tuple[str, str], ...] = (
    ("01_introduction", "introduction"),
    ("02_ownership_p1", "ownership_p1"),
    ("03_structs_enums", "structs_enums"),
    ("04_collections_generics", "collections_generics"),
    ("05_errors_traits", "errors_traits"),
    ("06_modules_testing", "modules_testing"),
    ("07_ecosystem", "ecosystem"),
    ("08_closures_iterators", "closures_iterators"),
    ("09_ownership_p2", "ownership_p2"),
    ("10_lifetimes", "lifetimes"),
    ("11_smart_pointers", "smart_pointers"),
    ("12_unsafe", "unsafe"),
    ("13_parallelism", "parallelism"),
    ("14_concurrency", "concurrency"),
)

HOMEWORKS: tuple[tuple[str, str], ...] = (
    ("homeworks/week1/primerlab", "primerlab"),
    ("homeworks/week2/getownedlab", "getownedlab"),
    ("homeworks/week3/cardlab", "cardlab"),
    ("homeworks/week4/multilab", "multilab"),
    ("homeworks/week5/pokerlab", "pokerlab"),
    ("homeworks/week5-ec/summarylab", "summarylab"),
    ("homeworks/week6/greplab", "greplab"),
    ("homeworks/week8/iterlab", "iterlab"),
    ("homeworks/week9/splitlab", "splitlab"),
    ("homeworks/week10/filterlab", "filterlab"),
    ("homeworks/week12/rowlab", "rowlab"),
)
