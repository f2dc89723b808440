from typing import AbstractSet, List, Sequence, Set

from ..config import PodmanConfig
from ..exceptions import PortConflict, PortRangeExhausted
from ..schemas.environment import PortMapping


def allocate_ports(
    config: PodmanConfig,
    used_ports: AbstractSet[int],
    requested: Sequence[PortMapping]
) -> List[PortMapping]:
    """Resolve host ports for the requested mappings.

    Entries are processed in request order. An explicit ``host_port`` is kept
    as-is unless it is already used or was claimed earlier in this call.
    Entries without one get the lowest free port in
    ``[port_range_start, port_range_end)``.

    ``used_ports`` is never mutated. On failure nothing is returned, so a
    failed call never leaves a partial allocation behind.

    Raises:
        PortConflict: an explicit host port is taken.
        PortRangeExhausted: no free port is left for an automatic mapping.
    """
    result: List[PortMapping] = []
    newly_used: Set[int] = set()
    
    for mapping in requested:
        if mapping.host_port is not None:
            if mapping.host_port in used_ports or mapping.host_port in newly_used:
                raise PortConflict(mapping.host_port)
            newly_used.add(mapping.host_port)
            result.append(mapping.model_copy())
            continue
        
        assigned = None
        for port in range(config.port_range_start, config.port_range_end):
            if port not in used_ports and port not in newly_used:
                assigned = port
                break
        
        if assigned is None:
            raise PortRangeExhausted(config.port_range_start, config.port_range_end)
        
        newly_used.add(assigned)
        result.append(mapping.model_copy(update={"host_port": assigned}))
    
    return result
