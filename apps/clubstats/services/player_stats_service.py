"""
Player network analytics: partners, opponents, head-to-head and composite
player statistics.

Match participation comes from statistics snapshots. Wins and losses come
from the results captured in those snapshots, overridden by any live result
recorded for the same match later.
"""

import logging
from collections import Counter
from typing import Dict, Iterable, List, NamedTuple, Optional

from clubstats.database.models import WinnerTeam
from clubstats.models.schemas import (
    HeadToHead,
    HeadToHeadMatch,
    MatchPlayerRecord,
    MatchResultRecord,
    PlayerComparison,
    PlayerCount,
    PlayerMatchResult,
    PlayerRecord,
    PlayerStatistics,
    PreferredCategory,
    SeasonCount,
    SeasonRecord,
    StatisticsFilters,
    StatisticsSnapshotRecord,
)
from clubstats.services.calculation_service import (
    NetworkTracker,
    PlayerNetworkStats,
    calculate_score_difference,
    get_team_structure,
    group_match_players,
)
from clubstats.services.errors import NotFoundError
from clubstats.services.snapshot_service import filter_snapshots
from clubstats.services.store_service import CachedRecordStore
from clubstats.utils.constants import (
    DEFAULT_RECENT_MATCHES_LIMIT,
    DEFAULT_TOP_LIMIT,
    STATISTICS_RECENT_MATCHES_LIMIT,
    UNKNOWN_PLAYER_NAME,
)

logger = logging.getLogger(__name__)


class MatchContext(NamedTuple):
    """A snapshotted match with the session it was played in."""

    match_id: str
    session_id: str
    date: str
    season: str
    court_id: Optional[str]
    match_players: List[MatchPlayerRecord]

    def includes(self, player_id: str) -> bool:
        return any(mp.player_id == player_id for mp in self.match_players)


# ============================================================================
# Helpers
# ============================================================================

def build_match_index(snapshots: Iterable[StatisticsSnapshotRecord]) -> Dict[str, MatchContext]:
    """Every match with players across the snapshots, keyed by match id."""
    index: Dict[str, MatchContext] = {}
    for snapshot in snapshots:
        matches = {m.id: m for m in snapshot.matches}
        for match_id, match_players in group_match_players(snapshot.match_players).items():
            match = matches.get(match_id)
            index[match_id] = MatchContext(
                match_id=match_id,
                session_id=snapshot.session_id,
                date=snapshot.session_date,
                season=snapshot.season,
                court_id=match.court_id if match else None,
                match_players=match_players,
            )
    return index


def collect_match_results(
    snapshots: Iterable[StatisticsSnapshotRecord], live_results: Iterable[MatchResultRecord]
) -> List[MatchResultRecord]:
    """One result per match: the snapshotted one unless a live result exists."""
    by_match = {}
    for snapshot in snapshots:
        for result in snapshot.match_results:
            by_match[result.match_id] = result
    for result in live_results:
        by_match[result.match_id] = result
    return list(by_match.values())


def _player_name(player_map: Dict[str, PlayerRecord], player_id: str) -> str:
    player = player_map.get(player_id)
    return player.name if player else UNKNOWN_PLAYER_NAME


def _known_names(player_map: Dict[str, PlayerRecord], player_ids: Iterable[str]) -> List[str]:
    """Display names of the players that still exist."""
    return [player_map[pid].name for pid in player_ids if pid in player_map]


def _to_player_counts(pairs, player_map: Dict[str, PlayerRecord]) -> List[PlayerCount]:
    return [
        PlayerCount(player_id=pid, player_name=_player_name(player_map, pid), count=count)
        for pid, count in pairs
    ]


def compute_player_network(
    player_id: str, contexts: Iterable[MatchContext]
) -> PlayerNetworkStats:
    """Partner and opponent tallies of one player over the given matches."""
    tracker = NetworkTracker()
    for ctx in contexts:
        if ctx.includes(player_id):
            tracker.process_match(ctx.match_players)
    return tracker.get_player(player_id)


# ============================================================================
# Partners and opponents
# ============================================================================

async def get_top_partners(
    store: CachedRecordStore, player_id: str, limit: int = DEFAULT_TOP_LIMIT
) -> List[PlayerCount]:
    """The players most often on the same team as player_id."""
    index = build_match_index(await store.list_statistics_snapshots())
    player_map = {p.id: p for p in await store.list_players()}
    network = compute_player_network(player_id, index.values())
    return _to_player_counts(network.top_partners(limit), player_map)


async def get_top_opponents(
    store: CachedRecordStore, player_id: str, limit: int = DEFAULT_TOP_LIMIT
) -> List[PlayerCount]:
    """The players most often on the other team from player_id."""
    index = build_match_index(await store.list_statistics_snapshots())
    player_map = {p.id: p for p in await store.list_players()}
    network = compute_player_network(player_id, index.values())
    return _to_player_counts(network.top_opponents(limit), player_map)


# ============================================================================
# Head-to-head
# ============================================================================

def compute_player_comparison(
    player1_id: str,
    player2_id: str,
    contexts: Iterable[MatchContext],
    results: Iterable[MatchResultRecord],
    player_map: Dict[str, PlayerRecord],
) -> PlayerComparison:
    """
    Shared matches of two players.

    Every shared match counts as partnered or opposed. Matches with a result
    enter the history; wins are only counted when the two were opponents.
    """
    results_by_match = {r.match_id: r for r in results}
    comparison = PlayerComparison(player1_id=player1_id, player2_id=player2_id)

    for ctx in contexts:
        teams = get_team_structure(ctx.match_players)
        team1 = teams.team_of(player1_id)
        team2 = teams.team_of(player2_id)
        if team1 is None or team2 is None:
            continue

        was_partner = team1 == team2
        if was_partner:
            comparison.partner_count += 1
        else:
            comparison.opponent_count += 1

        result = results_by_match.get(ctx.match_id)
        if result is None:
            continue

        player1_won = result.winner_team == team1
        partner_names = None
        opponent_names = None
        if teams.player_count > 2:
            if was_partner:
                partner_names = _known_names(
                    player_map, [pid for pid in teams.teammates_of(player1_id) if pid != player2_id]
                ) or None
                opponent_names = _known_names(player_map, teams.opponents_of(player1_id))
            else:
                partner_names = _known_names(player_map, teams.teammates_of(player1_id)) or None
                opponent_names = _known_names(player_map, teams.opponents_of(player1_id))

        comparison.matches.append(
            HeadToHeadMatch(
                match_id=ctx.match_id,
                session_id=ctx.session_id,
                date=ctx.date,
                player1_won=player1_won,
                player1_team=team1,
                player2_team=team2,
                was_partner=was_partner,
                sport=result.sport,
                score_data=result.score_data,
                partner_names=partner_names,
                opponent_names=opponent_names,
            )
        )
        if not was_partner:
            if player1_won:
                comparison.player1_wins += 1
            else:
                comparison.player2_wins += 1

    comparison.matches.sort(key=lambda m: m.date, reverse=True)
    return comparison


async def get_player_comparison(
    store: CachedRecordStore, player1_id: str, player2_id: str
) -> PlayerComparison:
    snapshots = await store.list_statistics_snapshots()
    index = build_match_index(snapshots)
    results = collect_match_results(snapshots, await store.list_match_results())
    player_map = {p.id: p for p in await store.list_players()}
    return compute_player_comparison(player1_id, player2_id, index.values(), results, player_map)


async def get_player_head_to_head(
    store: CachedRecordStore, player1_id: str, player2_id: str
) -> HeadToHead:
    """Head-to-head record and history without partner/opponent counts."""
    comparison = await get_player_comparison(store, player1_id, player2_id)
    return HeadToHead(
        player1_id=comparison.player1_id,
        player2_id=comparison.player2_id,
        player1_wins=comparison.player1_wins,
        player2_wins=comparison.player2_wins,
        matches=comparison.matches,
    )


# ============================================================================
# Match history
# ============================================================================

def compute_player_matches(
    player_id: str,
    contexts: Iterable[MatchContext],
    results: Iterable[MatchResultRecord],
    player_map: Dict[str, PlayerRecord],
) -> List[PlayerMatchResult]:
    """The player's matches that have a result, newest first."""
    results_by_match = {r.match_id: r for r in results}
    rows = []
    for ctx in contexts:
        result = results_by_match.get(ctx.match_id)
        if result is None:
            continue
        teams = get_team_structure(ctx.match_players)
        side = teams.team_of(player_id)
        if side is None:
            continue
        partners = teams.teammates_of(player_id)
        rows.append(
            PlayerMatchResult(
                match_id=ctx.match_id,
                session_id=ctx.session_id,
                date=ctx.date,
                won=result.winner_team == side,
                was_partner=bool(partners),
                partner_names=[_player_name(player_map, pid) for pid in partners],
                opponent_names=[_player_name(player_map, pid) for pid in teams.opponents_of(player_id)],
                sport=result.sport,
                score_data=result.score_data,
            )
        )
    rows.sort(key=lambda r: r.date, reverse=True)
    return rows


async def get_player_all_matches(store: CachedRecordStore, player_id: str) -> List[PlayerMatchResult]:
    snapshots = await store.list_statistics_snapshots()
    index = build_match_index(snapshots)
    results = collect_match_results(snapshots, await store.list_match_results())
    player_map = {p.id: p for p in await store.list_players()}
    return compute_player_matches(player_id, index.values(), results, player_map)


async def get_player_recent_matches(
    store: CachedRecordStore, player_id: str, limit: int = DEFAULT_RECENT_MATCHES_LIMIT
) -> List[PlayerMatchResult]:
    matches = await get_player_all_matches(store, player_id)
    return matches[:limit]


# ============================================================================
# Seasons
# ============================================================================

def compute_check_ins_by_season(
    player_id: str, snapshots: Iterable[StatisticsSnapshotRecord]
) -> List[SeasonCount]:
    counts: Dict[str, int] = {}
    for snapshot in snapshots:
        n = sum(1 for c in snapshot.check_ins if c.player_id == player_id)
        if n:
            counts[snapshot.season] = counts.get(snapshot.season, 0) + n
    return [SeasonCount(season=season, count=count) for season, count in sorted(counts.items())]


async def get_check_ins_by_season(store: CachedRecordStore, player_id: str) -> List[SeasonCount]:
    snapshots = await store.list_statistics_snapshots()
    return compute_check_ins_by_season(player_id, snapshots)


# ============================================================================
# Composite statistics
# ============================================================================

def _preferred_category(contexts: List[MatchContext]) -> Optional[PreferredCategory]:
    singles = sum(1 for ctx in contexts if len(ctx.match_players) == 2)
    doubles = sum(1 for ctx in contexts if len(ctx.match_players) >= 4)
    if singles and doubles:
        return PreferredCategory.MIXED
    if singles:
        return PreferredCategory.SINGLE
    if doubles:
        return PreferredCategory.DOUBLE
    return None


def _average_level_difference(
    player: PlayerRecord,
    partners: List[PlayerCount],
    opponents: List[PlayerCount],
    player_map: Dict[str, PlayerRecord],
) -> Optional[float]:
    """Level gap to partners and opponents weighted by shared matches."""
    own_level = player.level if player.level is not None else 0.0
    total = 0.0
    weight = 0
    for entry in list(partners) + list(opponents):
        other = player_map.get(entry.player_id)
        if other is None or other.level is None:
            continue
        total += abs(own_level - other.level) * entry.count
        weight += entry.count
    if weight == 0:
        return None
    return round(total / weight, 2)


def compute_player_statistics(
    player: PlayerRecord,
    snapshots: List[StatisticsSnapshotRecord],
    players: Iterable[PlayerRecord],
    results: Iterable[MatchResultRecord],
    court_indexes: Dict[str, int],
) -> PlayerStatistics:
    """Composite statistics of one player over already filtered snapshots."""
    player_map = {p.id: p for p in players}
    contexts = [ctx for ctx in build_match_index(snapshots).values() if ctx.includes(player.id)]

    check_ins_by_season = compute_check_ins_by_season(player.id, snapshots)

    matches_by_season: Dict[str, int] = {}
    courts: Counter = Counter()
    for ctx in contexts:
        matches_by_season[ctx.season] = matches_by_season.get(ctx.season, 0) + 1
        if ctx.court_id in court_indexes:
            courts[court_indexes[ctx.court_id]] += 1

    network = compute_player_network(player.id, contexts)
    partners = _to_player_counts(network.top_partners(DEFAULT_TOP_LIMIT), player_map)
    opponents = _to_player_counts(network.top_opponents(DEFAULT_TOP_LIMIT), player_map)

    results_by_match = {r.match_id: r for r in results}
    wins = losses = 0
    record: Dict[str, List[int]] = {}
    score_diffs: List[int] = []
    for ctx in contexts:
        result = results_by_match.get(ctx.match_id)
        if result is None:
            continue
        side = get_team_structure(ctx.match_players).team_of(player.id) or WinnerTeam.TEAM2
        season_record = record.setdefault(ctx.season, [0, 0])
        if result.winner_team == side:
            wins += 1
            season_record[0] += 1
        else:
            losses += 1
            season_record[1] += 1
        diff = calculate_score_difference(result.score_data, side)
        if diff is not None:
            score_diffs.append(diff)

    with_results = wins + losses
    return PlayerStatistics(
        player_id=player.id,
        player_name=player.name,
        total_check_ins=sum(s.count for s in check_ins_by_season),
        check_ins_by_season=check_ins_by_season,
        total_matches=len(contexts),
        matches_by_season=[
            SeasonCount(season=season, count=count) for season, count in sorted(matches_by_season.items())
        ],
        top_partners=partners,
        top_opponents=opponents,
        preferred_category=_preferred_category(contexts),
        average_level_difference=_average_level_difference(player, partners, opponents, player_map),
        most_played_court=courts.most_common(1)[0][0] if courts else None,
        last_played_date=max((ctx.date for ctx in contexts), default=None),
        total_wins=wins,
        total_losses=losses,
        matches_with_results=with_results,
        win_rate=round(wins / with_results * 100, 1) if with_results else 0.0,
        average_score_difference=round(sum(score_diffs) / len(score_diffs), 1) if score_diffs else None,
        record_by_season=[
            SeasonRecord(season=season, wins=won, losses=lost)
            for season, (won, lost) in sorted(record.items())
        ],
        recent_matches=compute_player_matches(player.id, contexts, results_by_match.values(), player_map)[
            :STATISTICS_RECENT_MATCHES_LIMIT
        ],
    )


async def get_player_statistics(
    store: CachedRecordStore,
    player_id: str,
    filters: Optional[StatisticsFilters] = None,
) -> PlayerStatistics:
    """
    Composite statistics of a player, restricted by season and date filters.

    Raises:
        NotFoundError: If the player does not exist
    """
    player = await store.get_player(player_id)
    if player is None:
        raise NotFoundError("Player", player_id)

    filters = filters or StatisticsFilters()
    snapshots = filter_snapshots(
        await store.list_statistics_snapshots(),
        date_from=filters.date_from,
        date_to=filters.date_to,
        season=filters.season,
    )
    players = await store.list_players()
    results = collect_match_results(snapshots, await store.list_match_results())
    court_indexes = {c.id: c.idx for c in await store.list_courts()}

    stats = compute_player_statistics(player, snapshots, players, results, court_indexes)
    logger.debug(
        f"Statistics for player {player_id}: {stats.total_matches} matches, "
        f"{stats.total_wins}W/{stats.total_losses}L over {len(snapshots)} snapshot(s)"
    )
    return stats
