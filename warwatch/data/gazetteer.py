"""Static place-name table used to put alert areas on the map."""
from typing import Dict, Tuple

DEFAULT_CENTROID: Tuple[float, float] = (31.5, 34.8)

# Insertion order matters: substring matching returns the first hit.
GAZETTEER: Dict[str, Tuple[float, float]] = {
    # Hebrew names as they appear in Home Front Command area lists
    "תל אביב": (32.0853, 34.7818),
    "ירושלים": (31.7683, 35.2137),
    "חיפה": (32.7940, 34.9896),
    "באר שבע": (31.2518, 34.7913),
    "אשדוד": (31.8044, 34.6553),
    "אשקלון": (31.6688, 34.5743),
    "שדרות": (31.5246, 34.5968),
    "נתניה": (32.3215, 34.8532),
    "ראשון לציון": (31.9730, 34.7925),
    "פתח תקווה": (32.0840, 34.8878),
    "חולון": (32.0158, 34.7874),
    "בת ים": (32.0238, 34.7519),
    "רמת גן": (32.0684, 34.8248),
    "בני ברק": (32.0807, 34.8338),
    "הרצליה": (32.1624, 34.8447),
    "כפר סבא": (32.1782, 34.9076),
    "רעננה": (32.1848, 34.8713),
    "רחובות": (31.8928, 34.8113),
    "מודיעין": (31.8969, 35.0104),
    "אילת": (29.5577, 34.9519),
    "נהריה": (33.0058, 35.0941),
    "עכו": (32.9281, 35.0818),
    "קריית שמונה": (33.2073, 35.5707),
    "צפת": (32.9646, 35.4960),
    "טבריה": (32.7922, 35.5312),
    "עפולה": (32.6076, 35.2892),
    "נצרת": (32.6996, 35.3035),
    "קריית גת": (31.6100, 34.7642),
    "דימונה": (31.0684, 35.0336),
    "מטולה": (33.2778, 35.5786),
    "אופקים": (31.3141, 34.6203),
    "נתיבות": (31.4231, 34.5886),
    # English spellings
    "Tel Aviv": (32.0853, 34.7818),
    "Jerusalem": (31.7683, 35.2137),
    "Haifa": (32.7940, 34.9896),
    "Beersheba": (31.2518, 34.7913),
    "Ashdod": (31.8044, 34.6553),
    "Ashkelon": (31.6688, 34.5743),
    "Sderot": (31.5246, 34.5968),
    "Netanya": (32.3215, 34.8532),
    "Eilat": (29.5577, 34.9519),
    "Nahariya": (33.0058, 35.0941),
    "Kiryat Shmona": (33.2073, 35.5707),
    "Tiberias": (32.7922, 35.5312),
    "Golan Heights": (33.1, 35.8),
    "Gaza": (31.5017, 34.4668),
    "Rafah": (31.2850, 34.2447),
    "Tyre": (33.2705, 35.1966),
    "Beirut": (33.8938, 35.5018),
    "Damascus": (33.5138, 36.2765),
    "Tehran": (35.6892, 51.3890),
    "Isfahan": (32.6546, 51.6680),
    "Sanaa": (15.3694, 44.1910),
}


def lookup_coordinates(name: str) -> Tuple[float, float]:
    """Resolve a free-text place name to (lat, lng).

    Exact match first, then the first entry where one name contains the
    other, then the default centroid.
    """
    key = (name or "").strip()
    if not key:
        return DEFAULT_CENTROID

    if key in GAZETTEER:
        return GAZETTEER[key]

    folded = key.casefold()
    for place, coords in GAZETTEER.items():
        candidate = place.casefold()
        if candidate in folded or folded in candidate:
            return coords

    return DEFAULT_CENTROID
