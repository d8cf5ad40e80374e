"""
Jamo tables — romanized letter runs → Hangul jamo.

Letters are read greedily as syllables: an initial consonant, a vowel and an
optional final consonant. Each position has its own table, keyed by the
lowercase letter run it consumes. Encoders at or above EXTENDED_DIM merge in
longer runs (doubled consonants, clusters, archaic vowels) for finer
discrimination.

Code points:
  initials  U+1100..U+1112 (19)
  vowels    U+1161..U+1175 (21), extended U+118E..U+1194
  finals    U+11A8..U+11C2 (27)
"""

from dataclasses import dataclass

# ㅇ: placeholder initial when a syllable starts with a vowel
SILENT_INITIAL = 'ᄋ'

INITIALS = {
    'g': 'ᄀ',   # ㄱ
    'kk': 'ᄁ',  # ㄲ
    'n': 'ᄂ',   # ㄴ
    'd': 'ᄃ',   # ㄷ
    'tt': 'ᄄ',  # ㄸ
    'r': 'ᄅ',   # ㄹ
    'l': 'ᄅ',
    'm': 'ᄆ',   # ㅁ
    'b': 'ᄇ',   # ㅂ
    'v': 'ᄇ',
    'pp': 'ᄈ',  # ㅃ
    's': 'ᄉ',   # ㅅ
    'x': 'ᄉ',
    'sh': 'ᄉ',
    'j': 'ᄌ',   # ㅈ
    'z': 'ᄌ',
    'ch': 'ᄎ',  # ㅊ
    'k': 'ᄏ',   # ㅋ
    'c': 'ᄏ',
    'q': 'ᄏ',
    't': 'ᄐ',   # ㅌ
    'th': 'ᄐ',
    'p': 'ᄑ',   # ㅍ
    'f': 'ᄑ',
    'ph': 'ᄑ',
    'h': 'ᄒ',   # ㅎ
}

EXTENDED_INITIALS = {
    'ss': 'ᄊ',   # ㅆ
    'bb': 'ᄈ',   # ㅃ
    'dd': 'ᄄ',   # ㄸ
    'gg': 'ᄁ',   # ㄲ
    'jj': 'ᄍ',   # ㅉ
    'tch': 'ᄎ',  # ㅊ
    'sch': 'ᄉ',  # ㅅ
}

VOWELS = {
    'a': 'ᅡ',    # ㅏ
    'ae': 'ᅢ',   # ㅐ
    'ya': 'ᅣ',   # ㅑ
    'yae': 'ᅤ',  # ㅒ
    'eo': 'ᅥ',   # ㅓ
    'e': 'ᅦ',    # ㅔ
    'yeo': 'ᅧ',  # ㅕ
    'ye': 'ᅨ',   # ㅖ
    'o': 'ᅩ',    # ㅗ
    'wa': 'ᅪ',   # ㅘ
    'wae': 'ᅫ',  # ㅙ
    'oe': 'ᅬ',   # ㅚ
    'yo': 'ᅭ',   # ㅛ
    'u': 'ᅮ',    # ㅜ
    'wo': 'ᅯ',   # ㅝ
    'we': 'ᅰ',   # ㅞ
    'wi': 'ᅱ',   # ㅟ
    'yu': 'ᅲ',   # ㅠ
    'eu': 'ᅳ',   # ㅡ
    'ui': 'ᅴ',   # ㅢ
    'i': 'ᅵ',    # ㅣ
    # English spellings
    'y': 'ᅵ',
    'ee': 'ᅵ',
    'ie': 'ᅵ',
    'oo': 'ᅮ',
    'ai': 'ᅢ',
    'ay': 'ᅦ',
    'oa': 'ᅩ',
    'au': 'ᅩ',
    'aw': 'ᅩ',
}

EXTENDED_VOWELS = {
    'yya': 'ᆎ',
    'yyae': 'ᆏ',
    'yyeo': 'ᆐ',
    'yye': 'ᆑ',
    'yyo': 'ᆒ',
    'yyu': 'ᆓ',
    'yyi': 'ᆔ',
}

FINALS = {
    'g': 'ᆨ',   # ㄱ
    'x': 'ᆪ',   # ㄳ
    'n': 'ᆫ',   # ㄴ
    'd': 'ᆮ',   # ㄷ
    'l': 'ᆯ',   # ㄹ
    'r': 'ᆯ',
    'm': 'ᆷ',   # ㅁ
    'b': 'ᆸ',   # ㅂ
    's': 'ᆺ',   # ㅅ
}

EXTENDED_FINALS = {
    'ks': 'ᆪ',   # ㄳ
    'nj': 'ᆬ',   # ㄵ
    'nh': 'ᆭ',   # ㄶ
    'lk': 'ᆰ',   # ㄺ
    'lm': 'ᆱ',   # ㄻ
    'lp': 'ᆲ',   # ㄼ
    'ls': 'ᆳ',   # ㄽ
    'lt': 'ᆴ',   # ㄾ
    'lph': 'ᆵ',  # ㄿ
    'lh': 'ᆶ',   # ㅀ
    'ps': 'ᆹ',   # ㅄ
    'ss': 'ᆻ',   # ㅆ
    'ng': 'ᆼ',   # ㅇ
    'j': 'ᆽ',    # ㅈ
    'ch': 'ᆾ',   # ㅊ
    'k': 'ᆿ',    # ㅋ
    't': 'ᇀ',    # ㅌ
    'p': 'ᇁ',    # ㅍ
    'h': 'ᇂ',    # ㅎ
}

# Symbols read aloud before syllable extraction
PHONETIC = {
    '+': 'plus',
    '-': 'minus',
    '*': 'times',
    '/': 'slash',
    '\\': 'backslash',
    '=': 'equals',
    '%': 'percent',
    '&': 'and',
    '@': 'at',
    '#': 'hash',
    '$': 'dollar',
    '<': 'less',
    '>': 'greater',
    '^': 'caret',
    '~': 'tilde',
    '!': 'bang',
    '?': 'question',
    '.': 'dot',
    ',': 'comma',
    ':': 'colon',
    ';': 'semicolon',
    '_': 'underscore',
    '|': 'pipe',
    '(': 'paren',
    ')': 'paren',
    '[': 'bracket',
    ']': 'bracket',
    '{': 'brace',
    '}': 'brace',
    '"': 'quote',
    "'": 'apostrophe',
    '`': 'backtick',
}

# Sino-Korean numerals
DIGITS = '영일이삼사오육칠팔구'
DECIMAL_POINT = '점'

# Place word by digit position (1 = units)
PLACES = {
    2: '십', 3: '백', 4: '천', 5: '만',
    6: '십만', 7: '백만', 8: '천만', 9: '억',
    10: '십억', 11: '백억', 12: '천억', 13: '조',
    14: '십조', 15: '백조', 16: '천조', 17: '경',
    18: '십경', 19: '백경', 20: '천경', 21: '자',
}


@dataclass
class JamoTables:
    initials: dict
    vowels: dict
    finals: dict
    max_initial: int
    max_vowel: int
    max_final: int


def tables_for(extended: bool) -> JamoTables:
    """Fresh tables for one encoder; the module-level dicts are never modified."""
    initials, vowels, finals = dict(INITIALS), dict(VOWELS), dict(FINALS)
    if extended:
        initials.update(EXTENDED_INITIALS)
        vowels.update(EXTENDED_VOWELS)
        finals.update(EXTENDED_FINALS)
        return JamoTables(initials, vowels, finals, 3, 4, 3)
    return JamoTables(initials, vowels, finals, 2, 3, 2)
