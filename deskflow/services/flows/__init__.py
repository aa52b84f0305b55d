from deskflow.services.flows import admin_flow, hr_flow, project_flow, reservation_flow, sheets_flow, ticket_flow

# Trigger evaluation order when no session is active.
WORKFLOWS = [
    admin_flow.WORKFLOW,
    hr_flow.WORKFLOW,
    sheets_flow.WRITE_WORKFLOW,
    sheets_flow.READ_WORKFLOW,
    reservation_flow.WORKFLOW,
    project_flow.WORKFLOW,
    ticket_flow.WORKFLOW,
]

WORKFLOWS_BY_NAME = {workflow.name: workflow for workflow in WORKFLOWS}

__all__ = ["WORKFLOWS", "WORKFLOWS_BY_NAME"]
