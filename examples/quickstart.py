"""RevLift Quickstart: open a binary, then walk its blocks and IR."""

import sys
from pathlib import Path

from revlift import RevLiftContext
from revlift.config.loader import load_config
from revlift.errors import RevLiftError
from revlift.pipeline import Pipeline
from revlift.utils.logging import setup_logging_from_config


def main():
    # 1. Load configuration
    ctx = RevLiftContext()
    ctx.config = load_config()
    setup_logging_from_config(ctx.config.logging)

    # 2. Open the binary (defaults to the interpreter itself)
    path = Path(sys.argv[1] if len(sys.argv) > 1 else sys.executable)
    try:
        pipeline = Pipeline.open(path, context=ctx)
    except RevLiftError as e:
        print(f"Cannot open {path}: {e}")
        return

    # 3. Inspect the object graph
    for ref in pipeline.list_sections()[:12]:
        section = ref()
        print(f"  {section.index:>3} {section.name:<24} {section.address:#x} symbols={len(section)}")

    # 4. Subscribe to the streams, then run the whole chain
    blocks, ir = [], []
    pipeline.subscribe_basic_blocks(blocks.append)
    pipeline.subscribe_ir(ir.append)
    with pipeline:
        report = pipeline.run_ir_synthesis()

    print(f"\nDecoded {report.instructions} instructions in {report.symbols} symbols")
    print(f"{len(blocks)} basic blocks, {len(ir)} IR instructions, {len(report.failures)} failures")

    # 5. Show the first few blocks
    for block in blocks[:5]:
        owner = block.symbol.name if block.symbol is not None else "?"
        print(f"\n{owner} @ {block.address:#x}")
        for insn in block.instructions:
            print(f"  {insn}")


if __name__ == "__main__":
    main()
