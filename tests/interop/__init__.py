"""
Interop tests for full IBC transfer topologies.

Tests verify:

- Round trips over a linked seda <-> gaia topology restore every balance
- Escrow and voucher supply return to zero after the return leg
- Withheld and late acknowledgments surface as ack timeouts
- Topologies with more than two chains transfer over the first pair
"""
