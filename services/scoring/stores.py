import logging
from datetime import datetime
from typing import Any, Dict, Optional

from app import db
from models import Professional, Project
from services.scoring.complexity_analyzer import ProjectAnalysis

logger = logging.getLogger(__name__)


class ProfessionalStore:
    """Reads and writes professional records for the scoring service"""

    def get(self, professional_id: int) -> Optional[Professional]:
        return db.session.get(Professional, professional_id)

    def update(self, professional_id: int, patch: Dict[str, Any], commit: bool = True) -> Professional:
        professional = self.get(professional_id)
        if professional is None:
            raise LookupError(f"Professional {professional_id} not found")

        for key, value in patch.items():
            if not hasattr(Professional, key):
                raise AttributeError(f"Professional has no field '{key}'")
            setattr(professional, key, value)

        if commit:
            db.session.commit()
        return professional


class ProjectStore:
    """Reads projects and attaches their analysis"""

    def get(self, project_id: int) -> Optional[Project]:
        return db.session.get(Project, project_id)

    def attach_analysis(self, project_id: int, analysis: ProjectAnalysis, commit: bool = True) -> Project:
        project = self.get(project_id)
        if project is None:
            raise LookupError(f"Project {project_id} not found")

        project.ai_analysis = analysis.to_dict()
        project.analyzed_at = datetime.utcnow()

        if commit:
            db.session.commit()
        logger.info(f"Attached analysis to project {project_id}: "
                    f"complexity={analysis.complexity_score}, risk={analysis.risk_level}")
        return project
