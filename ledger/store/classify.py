"""
Category suggestion from a transaction note.

Matches the note against keyword lists for common category names, then
against the category names themselves. Only categories of the
transaction's type are considered. Matching is case-insensitive substring
search, so it works for notes without word boundaries.
"""

from typing import Iterable, Optional

from ledger.models.entities import Category, TransactionType


# Note keywords per category name (English and Chinese default names)
CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "food": ("lunch", "dinner", "breakfast", "food", "restaurant", "coffee", "takeout",
             "吃饭", "午饭", "晚饭", "早餐", "午餐", "晚餐", "餐厅", "外卖", "咖啡", "奶茶"),
    "transport": ("taxi", "uber", "bus", "subway", "metro", "fuel", "parking",
                  "打车", "地铁", "公交", "出租车", "滴滴", "加油", "停车"),
    "shopping": ("shopping", "buy", "supermarket", "mall",
                 "购买", "淘宝", "京东", "商场", "超市"),
    "entertainment": ("movie", "game", "travel", "entertainment", "ktv",
                      "电影", "游戏", "旅游"),
    "medical": ("hospital", "medicine", "doctor", "pharmacy",
                "医院", "药", "看病", "体检"),
    "education": ("tuition", "course", "book", "training",
                  "学费", "书", "课程", "培训"),
    "housing": ("rent", "utility", "utilities", "房租", "水电", "租金"),
    "communication": ("phone", "internet", "broadband", "话费", "流量", "宽带"),
}

# Chinese default category names and their keyword table entry
CATEGORY_ALIASES: dict[str, str] = {
    "餐饮": "food",
    "交通": "transport",
    "购物": "shopping",
    "娱乐": "entertainment",
    "医疗": "medical",
    "教育": "education",
    "住房": "housing",
    "通讯": "communication",
}


def keyword_group(category_name: str) -> Optional[str]:
    name = category_name.strip().lower()
    if name in CATEGORY_KEYWORDS:
        return name
    return CATEGORY_ALIASES.get(category_name.strip())


def suggest_category(
    note: str,
    transaction_type: TransactionType,
    categories: Iterable[Category],
) -> Optional[Category]:
    """
    Best category for a note, or None when nothing matches.

    Keyword matches win over a category name appearing in the note; ties
    go to the category listed first.
    """
    text = note.strip().lower()
    if not text:
        return None

    candidates = [c for c in categories if c.type == transaction_type]

    for category in candidates:
        group = keyword_group(category.name)
        if group and any(keyword in text for keyword in CATEGORY_KEYWORDS[group]):
            return category

    for category in candidates:
        if category.name.lower() in text:
            return category

    return None
