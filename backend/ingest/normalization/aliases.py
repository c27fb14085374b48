"""
Static game alias table.

Each entry names one canonical title and the strings it is known by: general
aliases (abbreviations, Korean titles, older names) and the category display
names each platform uses for it.
"""
from __future__ import annotations

from dataclasses import dataclass

from shared.models.enums import Platform


@dataclass(frozen=True)
class GameAliasEntry:
    canonical: str
    aliases: tuple[str, ...] = ()
    twitch_names: tuple[str, ...] = ()
    chzzk_names: tuple[str, ...] = ()

    def platform_names(self, platform: Platform) -> tuple[str, ...]:
        if platform == Platform.TWITCH:
            return self.twitch_names
        if platform == Platform.CHZZK:
            return self.chzzk_names
        return ()


GAME_ALIASES: tuple[GameAliasEntry, ...] = (
    GameAliasEntry(
        "PUBG: BATTLEGROUNDS",
        aliases=("PUBG", "BATTLEGROUNDS", "배틀그라운드", "배그", "PlayerUnknown's Battlegrounds"),
        twitch_names=("PUBG: BATTLEGROUNDS",),
        chzzk_names=("배틀그라운드", "PUBG: BATTLEGROUNDS", "배그"),
    ),
    GameAliasEntry(
        "League of Legends",
        aliases=("LoL", "롤", "리그오브레전드", "리그 오브 레전드", "League"),
        twitch_names=("League of Legends",),
        chzzk_names=("리그 오브 레전드", "League of Legends", "롤"),
    ),
    GameAliasEntry(
        "VALORANT",
        aliases=("발로란트", "발로", "Valorant"),
        twitch_names=("VALORANT",),
        chzzk_names=("발로란트", "VALORANT"),
    ),
    GameAliasEntry(
        "Minecraft",
        aliases=("마인크래프트", "마크", "마인크래프트 자바", "Minecraft Java"),
        twitch_names=("Minecraft",),
        chzzk_names=("마인크래프트", "Minecraft"),
    ),
    GameAliasEntry(
        "Lost Ark",
        aliases=("로스트아크", "로아", "LOST ARK"),
        twitch_names=("Lost Ark",),
        chzzk_names=("로스트아크", "Lost Ark", "LOST ARK"),
    ),
    GameAliasEntry(
        "Overwatch 2",
        aliases=("오버워치", "오버워치2", "OW2", "Overwatch"),
        twitch_names=("Overwatch 2",),
        chzzk_names=("오버워치 2", "Overwatch 2", "오버워치"),
    ),
    GameAliasEntry(
        "Apex Legends",
        aliases=("에이펙스", "에이펙스 레전드", "Apex"),
        twitch_names=("Apex Legends",),
        chzzk_names=("Apex Legends", "에이펙스 레전드"),
    ),
    GameAliasEntry(
        "Fortnite",
        aliases=("포트나이트", "포나"),
        twitch_names=("Fortnite",),
        chzzk_names=("포트나이트", "Fortnite"),
    ),
    GameAliasEntry(
        "Counter-Strike 2",
        aliases=("CS2", "CS:GO", "Counter-Strike", "카스", "카운터 스트라이크", "CSGO"),
        twitch_names=("Counter-Strike",),
        chzzk_names=("카운터 스트라이크 2", "Counter-Strike 2", "CS2"),
    ),
    GameAliasEntry(
        "Dota 2",
        aliases=("도타", "도타2", "DOTA", "DotA"),
        twitch_names=("Dota 2",),
        chzzk_names=("도타 2", "Dota 2"),
    ),
    GameAliasEntry(
        "EA SPORTS FC 24",
        aliases=("FC24", "FIFA", "피파", "피파24", "EA FC", "FC 24", "EA SPORTS FC"),
        twitch_names=("EA SPORTS FC 24",),
        chzzk_names=("EA SPORTS FC 24", "FC 24", "피파"),
    ),
    GameAliasEntry(
        "Grand Theft Auto V",
        aliases=("GTA5", "GTAV", "GTA V", "GTA 5", "지티에이"),
        twitch_names=("Grand Theft Auto V",),
        chzzk_names=("Grand Theft Auto V", "GTA V", "GTA5"),
    ),
    GameAliasEntry(
        "Diablo IV",
        aliases=("디아블로", "디아블로4", "Diablo 4", "D4"),
        twitch_names=("Diablo IV",),
        chzzk_names=("디아블로 IV", "Diablo IV", "디아블로4"),
    ),
    GameAliasEntry(
        "World of Warcraft",
        aliases=("WoW", "와우", "월드 오브 워크래프트"),
        twitch_names=("World of Warcraft",),
        chzzk_names=("월드 오브 워크래프트", "World of Warcraft", "WoW"),
    ),
    GameAliasEntry(
        "MapleStory",
        aliases=("메이플스토리", "메이플", "메플"),
        twitch_names=("MapleStory",),
        chzzk_names=("메이플스토리", "MapleStory"),
    ),
    GameAliasEntry(
        "Hearthstone",
        aliases=("하스스톤", "하스"),
        twitch_names=("Hearthstone",),
        chzzk_names=("하스스톤", "Hearthstone"),
    ),
    GameAliasEntry(
        "Teamfight Tactics",
        aliases=("TFT", "전략적 팀 전투", "롤토체스", "팀파이트 택틱스"),
        twitch_names=("Teamfight Tactics",),
        chzzk_names=("전략적 팀 전투", "Teamfight Tactics", "TFT"),
    ),
    GameAliasEntry(
        "ELDEN RING",
        aliases=("엘든링", "엘든 링", "Elden Ring"),
        twitch_names=("ELDEN RING",),
        chzzk_names=("엘든 링", "ELDEN RING"),
    ),
    GameAliasEntry(
        "Escape from Tarkov",
        aliases=("타르코프", "EFT", "이프티"),
        twitch_names=("Escape from Tarkov",),
        chzzk_names=("Escape from Tarkov", "타르코프"),
    ),
    GameAliasEntry(
        "Just Chatting",
        aliases=("저스트 채팅", "잡담", "Talk Shows & Podcasts"),
        twitch_names=("Just Chatting",),
        chzzk_names=("Just Chatting", "토크/캠방", "일상/잡담"),
    ),
    GameAliasEntry(
        "Call of Duty: Warzone",
        aliases=("워존", "Warzone", "COD Warzone", "콜오브듀티 워존"),
        twitch_names=("Call of Duty: Warzone",),
        chzzk_names=("콜 오브 듀티: 워존", "Call of Duty: Warzone", "워존"),
    ),
    GameAliasEntry(
        "Path of Exile",
        aliases=("POE", "패스 오브 엑자일", "패오엑"),
        twitch_names=("Path of Exile",),
        chzzk_names=("패스 오브 엑자일", "Path of Exile"),
    ),
    GameAliasEntry(
        "Black Desert Online",
        aliases=("검은사막", "BDO", "검사"),
        twitch_names=("Black Desert Online",),
        chzzk_names=("검은사막", "Black Desert Online"),
    ),
    GameAliasEntry(
        "서든어택",
        aliases=("Sudden Attack", "SA", "서든"),
        twitch_names=("Sudden Attack",),
        chzzk_names=("서든어택", "Sudden Attack"),
    ),
    GameAliasEntry(
        "Lineage W",
        aliases=("리니지W", "리니지 W", "리니지"),
        twitch_names=("Lineage W",),
        chzzk_names=("리니지W", "Lineage W"),
    ),
    GameAliasEntry(
        "Dungeon Fighter Online",
        aliases=("던전앤파이터", "DNF", "던파", "DFO"),
        twitch_names=("Dungeon Fighter Online",),
        chzzk_names=("던전앤파이터", "Dungeon Fighter Online"),
    ),
    GameAliasEntry(
        "StarCraft II",
        aliases=("스타크래프트", "스타2", "SC2", "스타크래프트 2"),
        twitch_names=("StarCraft II",),
        chzzk_names=("스타크래프트 II", "StarCraft II", "스타2"),
    ),
    GameAliasEntry(
        "StarCraft: Brood War",
        aliases=("스타크래프트", "스타1", "스타", "브루드워"),
        twitch_names=("StarCraft",),
        chzzk_names=("스타크래프트", "StarCraft", "스타"),
    ),
    GameAliasEntry(
        "Sports",
        aliases=("스포츠", "야구", "축구", "Sports Talk & Live Events"),
        twitch_names=("Sports",),
        chzzk_names=("스포츠", "Sports"),
    ),
)


# Category name to try first when looking a canonical title up on a platform.
# Keys are matched exactly; values are the platform's own display name.
PLATFORM_SEARCH_ALIASES: dict[Platform, dict[str, str]] = {
    Platform.TWITCH: {
        "PUBG: BATTLEGROUNDS": "PUBG: BATTLEGROUNDS",
        "Counter-Strike 2": "Counter-Strike",
        "Counter-Strike: Global Offensive": "Counter-Strike",
        "Dota 2": "Dota 2",
        "VALORANT": "VALORANT",
        "League of Legends": "League of Legends",
        "Apex Legends": "Apex Legends",
        "Overwatch 2": "Overwatch 2",
        "Fortnite": "Fortnite",
        "Minecraft": "Minecraft",
        "Grand Theft Auto V": "Grand Theft Auto V",
        "GTA V": "Grand Theft Auto V",
    },
    Platform.CHZZK: {
        "PUBG: BATTLEGROUNDS": "배틀그라운드",
        "League of Legends": "리그 오브 레전드",
        "VALORANT": "발로란트",
        "Overwatch 2": "오버워치",
        "Minecraft": "마인크래프트",
        "MapleStory": "메이플스토리",
        "Lost Ark": "로스트아크",
    },
}


# Titles warmed into the enrichment cache at startup
POPULAR_TITLES: tuple[str, ...] = (
    "League of Legends",
    "VALORANT",
    "Minecraft",
    "Fortnite",
    "Counter-Strike 2",
    "Dota 2",
    "Apex Legends",
    "Overwatch 2",
    "Grand Theft Auto V",
    "PUBG: BATTLEGROUNDS",
    "Lost Ark",
    "MapleStory",
    "Diablo IV",
    "World of Warcraft",
    "Hearthstone",
    "Teamfight Tactics",
    "ELDEN RING",
    "Escape from Tarkov",
    "Path of Exile",
    "StarCraft II",
)
