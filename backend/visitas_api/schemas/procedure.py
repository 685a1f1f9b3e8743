"""
Visitas API: Stored Procedure Outcome Types
===========================================

What:  Tagged result type for the status row returned by INS_VISITAs and
       UPD_VISITAS.
Why:   The procedures report their outcome as a single row
       {status, message, sql_state?, mysql_errno?}. Modeling it as a
       discriminated union keeps key inspection in one place.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class ProcedureSuccess(BaseModel):
    """The procedure reported status 'SUCCESS'."""
    status: Literal["success"] = "success"
    message: str = ""


class ProcedureFailure(BaseModel):
    """The procedure reported any other status. Diagnostic codes are optional."""
    status: Literal["failure"] = "failure"
    message: str = ""
    sql_state: Optional[str] = None
    mysql_errno: Optional[Union[int, str]] = None

    def mentions(self, marker: str) -> bool:
        return marker in self.message


ProcedureOutcome = Annotated[
    Union[ProcedureSuccess, ProcedureFailure],
    Field(discriminator="status"),
]
