"""Built-in Portuguese feedback keywords and emoji.

Matched as lowercase substrings, so entries must be lowercase.
"""

POSITIVE_PATTERNS: tuple[str, ...] = (
    "gostei",
    "adorei",
    "amei",
    "boa",
    "legal",
    "massa",
    "show",
    "engraçada",
    "engraçado",
    "ótima",
    "ótimo",
    "excelente",
    "top",
    "curtir",
    "curti",
    "curtiu",
    "curtido",
    "kkk",
    "haha",
    "rs",
    "kkkk",
    "sim",
    "muito boa",
    "muito bom",
    "😂",
    "🤣",
    "😍",
    "😄",
    "👍",
)

NEGATIVE_PATTERNS: tuple[str, ...] = (
    "não gostei",
    "ruim",
    "péssima",
    "péssimo",
    "horrível",
    "sem graça",
    "fraca",
    "fraco",
    "não curti",
    "não curtiu",
    "não curtido",
    "não deu",
    "não",
    "não gostou",
    "não achei",
    "não foi",
    "não é",
    "não está",
    "não tá",
    "não tem",
    "não teve",
    "👎",
    "😞",
    "😕",
    "😒",
)
