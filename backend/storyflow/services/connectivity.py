"""
Graph connectivity resolver.

把 interchange 的原始连线解析为剧情节点之间的 next_node_ids:
被过滤掉的实体（skip 节点）不出现在结果中，其出边由前驱继承。
"""
from __future__ import annotations

import logging
from typing import Dict, FrozenSet, Iterable, List, Set, Tuple

from storyflow.models.documents import Association

logger = logging.getLogger(__name__)


class ConnectivityResolver:
    """
    带记忆化的深度优先解析；经过 skip 节点形成的环在当前链上被截断。

    被祖先截断的结果不完整，只在截断点都位于自身子树内时才写入缓存。

    Args:
        associations: 原始连线
        entity_ids: 文档中存在的实体 ID（按文档顺序解析）
        skip_ids: 需要绕过的实体 ID
    """

    def __init__(
        self,
        associations: Iterable[Association],
        entity_ids: Iterable[str],
        skip_ids: Iterable[str],
    ) -> None:
        self.entity_order: List[str] = list(dict.fromkeys(entity_ids))
        self.entity_ids: Set[str] = set(self.entity_order)
        self.skip_ids: Set[str] = set(skip_ids)
        self.edges: Dict[str, List[str]] = {}
        for association in associations:
            if association.source and association.target:
                self.edges.setdefault(association.source, []).append(association.target)
        self._cut_edges: Set[Tuple[str, str]] = set()
        self._resolved: Dict[str, List[str]] = {}

    @property
    def cyclic_bypass_count(self) -> int:
        """被截断的 skip 环连线数"""
        return len(self._cut_edges)

    def _walk(self, node_id: str, chain: FrozenSet[str]) -> Tuple[List[str], Set[str]]:
        # 返回 (后继, 仍在祖先链上未闭合的截断点)
        if node_id in self._resolved:
            return self._resolved[node_id], set()

        current_chain = chain | {node_id}
        results: Dict[str, None] = {}
        open_cuts: Set[str] = set()
        for target in self.edges.get(node_id, []):
            if target not in self.entity_ids:
                continue
            if target in self.skip_ids:
                if target in current_chain:
                    if (node_id, target) not in self._cut_edges:
                        self._cut_edges.add((node_id, target))
                        logger.debug("[Connectivity] skip 节点成环: %s -> %s", node_id, target)
                    open_cuts.add(target)
                    continue
                cascaded, cuts = self._walk(target, current_chain)
                open_cuts |= cuts
                for item in cascaded:
                    results.setdefault(item, None)
            else:
                results.setdefault(target, None)

        open_cuts.discard(node_id)
        resolved = list(results)
        if not open_cuts:
            self._resolved[node_id] = resolved
        return resolved, open_cuts

    def resolve(self, node_id: str) -> List[str]:
        """解析单个节点的后继（去重，保持首次出现顺序）"""
        resolved, _ = self._walk(node_id, frozenset())
        return resolved

    def resolve_all(self) -> Dict[str, List[str]]:
        """按文档顺序解析所有实体，返回 {实体 ID: 后继列表}"""
        return {entity_id: self.resolve(entity_id) for entity_id in self.entity_order}


def resolve_next_node_ids(
    associations: Iterable[Association],
    entity_ids: Iterable[str],
    skip_ids: Iterable[str],
) -> Dict[str, List[str]]:
    return ConnectivityResolver(associations, entity_ids, skip_ids).resolve_all()
