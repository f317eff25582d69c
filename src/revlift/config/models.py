"""Pydantic configuration models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from revlift.config.defaults import DEFAULT_OUTPUT_BUFFER_SIZE


class DisassemblyConfig(BaseModel):
    syntax: Literal["intel", "att"] = "intel"
    detail: bool = True
    output_buffer_size: int = Field(default=DEFAULT_OUTPUT_BUFFER_SIZE, gt=0)


class SegmentationConfig(BaseModel):
    split_on_call: bool = True


class IRConfig(BaseModel):
    lift_vex: bool = False


class LoggingConfig(BaseModel):
    level: str = "INFO"
    json_output: bool = False


class RevLiftConfig(BaseModel):
    disassembly: DisassemblyConfig = Field(default_factory=DisassemblyConfig)
    segmentation: SegmentationConfig = Field(default_factory=SegmentationConfig)
    ir: IRConfig = Field(default_factory=IRConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
