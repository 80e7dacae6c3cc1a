from fastapi import APIRouter

from leadcrm.api.v1.endpoints import appointments, assignment, cron, health, playbooks, status

router = APIRouter(prefix="/api/v1")

router.include_router(health.router)
router.include_router(appointments.router)
router.include_router(assignment.router)
router.include_router(status.leads_router)
router.include_router(status.borrowers_router)
router.include_router(playbooks.router)
router.include_router(cron.router)
