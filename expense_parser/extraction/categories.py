"""
Category Inference

DESIGN DECISION: We use an ordered keyword table rather than a classifier because:
1. More transparent to the user
2. Deterministic - the same text always gets the same label
3. The user (or the remote service) can always override it

The table is ORDERED. The first category with any matching keyword wins,
so more specific categories come before broad ones: 购物 ("买") would
otherwise swallow almost every utterance.
"""

import re
from typing import Optional

from expense_parser.models.expense import ExpenseCategory


CATEGORY_TABLE: tuple[tuple[ExpenseCategory, tuple[str, ...]], ...] = (
    (ExpenseCategory.DINING, (
        "吃", "喝", "餐", "饭", "菜", "食", "饮", "咖啡", "茶", "奶茶", "外卖",
        "聚餐", "早餐", "午餐", "晚餐", "宵夜", "火锅", "烧烤", "麻辣烫", "面条",
        "米饭", "包子", "饺子", "汉堡", "披萨", "寿司", "甜品", "蛋糕", "冰淇淋",
        "零食", "水果", "牛奶", "酸奶", "果汁", "啤酒", "白酒", "红酒", "饮料",
        "矿泉水",
        "coffee", "tea", "lunch", "dinner", "breakfast", "meal", "food",
        "restaurant", "snack", "takeout",
    )),
    (ExpenseCategory.TRANSPORT, (
        "车", "油", "地铁", "公交", "打车", "滴滴", "出租", "停车", "加油", "高速",
        "过路费", "车费", "机票", "火车票", "高铁", "动车", "飞机", "船票",
        "摩托车", "电动车", "自行车", "共享单车", "网约车", "出行", "交通卡",
        "ETC", "违章", "年检",
        "taxi", "uber", "bus", "subway", "metro", "train", "flight", "parking",
        "fuel",
    )),
    (ExpenseCategory.MEDICAL, (
        "医院", "药", "看病", "体检", "医疗", "挂号费", "药费", "治疗", "手术",
        "住院", "检查", "化验", "拍片", "CT", "核磁", "B超", "心电图", "血压",
        "血糖", "疫苗", "打针", "输液", "牙科", "眼科", "皮肤科", "妇科", "儿科",
        "中医", "针灸", "推拿",
        "hospital", "doctor", "clinic", "pharmacy", "medicine", "dentist",
    )),
    (ExpenseCategory.DIGITAL, (
        "手机", "电脑", "平板", "耳机", "音响", "相机", "摄像头", "键盘", "鼠标",
        "显示器", "硬盘", "内存", "CPU", "显卡", "主板", "电源", "机箱", "散热器",
        "风扇", "数据线", "充电器", "移动电源", "路由器", "交换机", "网线", "WiFi",
        "蓝牙", "智能手表", "智能手环", "无人机",
        "phone", "iphone", "laptop", "tablet", "headphone", "earbud", "camera",
        "keyboard", "monitor",
    )),
    (ExpenseCategory.EDUCATION, (
        "书", "课程", "培训", "学费", "教育", "学习", "考试", "报名费", "教材",
        "参考书", "笔记本", "文具", "笔", "橡皮", "尺子", "计算器", "软件", "网课",
        "辅导班", "家教", "驾校", "证书", "考证", "英语", "托福", "雅思", "四六级",
        "book", "course", "tuition", "class", "textbook", "exam",
    )),
    (ExpenseCategory.ENTERTAINMENT, (
        "电影", "游戏", "KTV", "唱歌", "旅游", "景点", "门票", "娱乐", "玩",
        "看电影", "演唱会", "话剧", "音乐会", "展览", "博物馆", "游乐园", "酒吧",
        "夜店", "桌游", "密室逃脱", "剧本杀", "网吧", "台球", "保龄球", "健身",
        "游泳", "瑜伽", "按摩", "SPA", "美容", "美甲",
        "movie", "cinema", "game", "concert", "gym", "karaoke", "museum",
    )),
    (ExpenseCategory.LIVING, (
        "水电费", "房租", "物业费", "网费", "话费", "生活用品", "日用品", "洗衣",
        "理发", "洗发水", "沐浴露", "牙膏", "牙刷", "毛巾", "纸巾", "洗衣液",
        "洗洁精", "垃圾袋", "电池", "灯泡", "插座", "家具", "电器", "维修", "搬家",
        "快递", "邮费", "保险",
        "rent", "utilities", "electricity", "haircut", "laundry", "insurance",
        "delivery",
    )),
    (ExpenseCategory.SHOPPING, (
        "买", "购", "商场", "超市", "淘宝", "京东", "网购", "衣服", "鞋子", "包包",
        "化妆品", "护肤品", "香水", "首饰", "手表", "眼镜", "帽子", "围巾", "手套",
        "内衣", "袜子", "裤子", "裙子", "外套", "T恤", "衬衫", "毛衣", "羽绒服",
        "运动鞋", "皮鞋", "凉鞋", "拖鞋",
        "shopping", "bought", "buy", "clothes", "shoes", "supermarket", "mall",
    )),
)


def _keyword_pattern(keyword: str) -> str:
    # Latin words must stand alone ("bus" is not in "business"); plurals allowed
    if keyword.isascii() and keyword.isalpha():
        return rf"(?<![a-z]){re.escape(keyword)}(?:s|es)?(?![a-z])"
    return re.escape(keyword)


def _compile(keywords: tuple[str, ...]) -> re.Pattern:
    ordered = sorted(keywords, key=len, reverse=True)
    return re.compile("|".join(_keyword_pattern(kw) for kw in ordered), re.IGNORECASE)


CATEGORY_PATTERNS: tuple[tuple[ExpenseCategory, re.Pattern], ...] = tuple(
    (category, _compile(keywords)) for category, keywords in CATEGORY_TABLE
)


def infer_category(text: str) -> Optional[ExpenseCategory]:
    """
    Guess the expense category of an utterance.

    This is a SUGGESTION only - the caller may override it.

    Returns:
        The first category in table order with a matching keyword, or None
    """
    if not text:
        return None

    for category, pattern in CATEGORY_PATTERNS:
        if pattern.search(text):
            return category
    return None
